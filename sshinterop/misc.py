# Copyright (c) 2022 by Ron Frederick <ronf@timeheart.net> and others.
#
# This program and the accompanying materials are made available under
# the terms of the Eclipse Public License v2.0 which accompanies this
# distribution and is available at:
#
#     http://www.eclipse.org/legal/epl-2.0/
#
# This program may also be made available under the following secondary
# licenses when the conditions for such availability set forth in the
# Eclipse Public License v2.0 are satisfied:
#
#    GNU General Public License, Version 2.0, or any later versions of
#    that license
#
# SPDX-License-Identifier: EPL-2.0 OR GPL-2.0-or-later
#
# Contributors:
#     Ron Frederick - initial implementation, API, and documentation

"""Miscellaneous utility classes and functions"""

import functools
import os
import unittest

from collections import OrderedDict
from pathlib import Path


def hide_empty(value, prefix=', '):
    """Return a string with optional prefix if value is non-empty"""

    value = str(value)
    return prefix + value if value else ''


def plural(length, label, suffix='s'):
    """Return a label with an optional plural suffix"""

    return '%d %s%s' % (length, label, suffix if length != 1 else '')


def open_file(filename, *args, **kwargs):
    """Open a file with home directory expansion"""

    return open(Path(filename).expanduser(), *args, **kwargs)


def read_file(filename, mode='rb'):
    """Read from a file with home directory expansion"""

    with open_file(filename, mode) as f:
        return f.read()


def write_file(filename, data, mode='wb', perms=None):
    """Write to a file and optionally restrict its permissions

       OpenSSH refuses to load private keys and some configuration
       files which are accessible to other users, so callers writing
       such files pass the permission bits to apply once the data is
       written.

    """

    with open_file(filename, mode) as f:
        result = f.write(data)

    if perms is not None:
        os.chmod(Path(filename).expanduser(), perms)

    return result


def async_context_manager(coro):
    """Let a coroutine returning a peer be awaited or used with async with

       Awaiting the decorated function returns its result directly.
       Using it with `async with` enters the result as well, so that
       leaving the block cleans up whatever the coroutine started.

    """

    class _Starter:
        """Awaitable which can also be entered as a context"""

        def __init__(self, started):
            self._started = started
            self._entered = None

        def __await__(self):
            return self._started.__await__()

        async def __aenter__(self):
            self._entered = await self._started
            return await self._entered.__aenter__()

        async def __aexit__(self, *exc_info):
            try:
                return await self._entered.__aexit__(*exc_info)
            finally:
                self._entered = None

    @functools.wraps(coro)
    def starter(*args, **kwargs):
        """Start the coroutine lazily"""

        return _Starter(coro(*args, **kwargs))

    return starter


class Options:
    """Base class for validated keyword option sets

       Options can be built from keyword arguments, from another
       instance of the same class, or from both, with keyword
       arguments taking precedence. Subclasses validate and store
       them in :meth:`prepare`.

    """

    def __init__(self, options=None, **kwargs):
        if options is not None and not isinstance(options, type(self)):
            raise TypeError('Expected %s, got %s' %
                            (type(self).__name__, type(options).__name__))

        self.kwargs = dict(options.kwargs) if options else {}
        self.kwargs.update(kwargs)

        self.prepare(**self.kwargs)

    def prepare(self):
        """Validate and store options"""


class Record:
    """Simple result record with named, defaulted fields

       Subclasses list their fields and defaults in `__slots__` as an
       `OrderedDict`. Fields can be set positionally or by keyword.

    """

    __slots__ = OrderedDict()

    def __init__(self, *args, **kwargs):
        values = OrderedDict(self.__slots__)
        values.update(zip(self.__slots__, args))
        values.update(kwargs)

        for k, v in values.items():
            setattr(self, k, v)

    def __repr__(self):
        fields = ('%s=%r' % (k, getattr(self, k)) for k in self.__slots__)
        return '%s(%s)' % (type(self).__name__, ', '.join(fields))

    def __str__(self):
        fields = []

        for k in self.__slots__:
            v = self._format(k, getattr(self, k))

            if v is not None:
                fields.append('%s: %s' % (k, v))

        return ', '.join(fields)

    def _format(self, k, v):
        """Return a field as text, or `None` to leave it out"""

        # pylint: disable=no-self-use,unused-argument

        return None if v is None else str(v)


class Error(Exception):
    """General SSH interop harness error

       :param reason:
           A human-readable description of the failure
       :type reason: `str`

    """

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class EnvironmentUnavailable(Error, unittest.SkipTest):
    """Required foreign peer is not available

       This exception is raised when a binary needed to run a scenario
       can't be found. It derives from :exc:`unittest.SkipTest`, so a
       test which lets it propagate is reported as skipped rather than
       failed.

       :param binary:
           The name of the binary which could not be found
       :type binary: `str`

    """

    def __init__(self, binary):
        super().__init__('Could not find %s' % binary)
        self.binary = binary


class SetupError(Error):
    """Scenario setup failed

       This exception is raised when a temporary file can't be written
       or a peer process can't be started.

    """


class TransportError(Error):
    """TCP connection to a peer could not be established"""


class PeerExited(TransportError):
    """Peer process exited before accepting a connection

       :param binary:
           The path of the binary which exited
       :param returncode:
           The exit status of the process
       :type binary: `str`
       :type returncode: `int`

    """

    def __init__(self, binary, returncode):
        super().__init__('%s exited with status %s' % (binary, returncode))
        self.binary = binary
        self.returncode = returncode


class HandshakeError(Error):
    """SSH handshake failed before a banner was exchanged"""


class BannerMismatch(Error, AssertionError):
    """Observed banner doesn't match the configured banner

       This exception derives from :exc:`AssertionError`, so test
       frameworks report it as a failure.

       :param expected:
           The banner text which was configured
       :param actual:
           The banner text or peer output which was observed
       :param substring:
           Whether the expected text was searched for in the output
           rather than compared for equality
       :type expected: `str`
       :type actual: `str`
       :type substring: `bool`

    """

    def __init__(self, expected, actual, substring=False):
        if substring:
            reason = 'want %r, %r does not contain it' % (expected, actual)
        else:
            reason = 'got %r; want %r' % (actual, expected)

        super().__init__(reason)
        self.expected = expected
        self.actual = actual

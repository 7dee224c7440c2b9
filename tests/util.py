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

"""Utility functions for unit tests"""

import asyncio
import functools
import os
import shutil
import subprocess
import tempfile
import unittest

import asyncssh

from sshinterop.logging import logger


_test_keys = {}

# Set to skip tests which run the real OpenSSH binaries
short_run = bool(os.environ.get('SSHINTEROP_SHORT'))


def asynctest(coro):
    """Decorator for async tests, for use with AsyncTestCase"""

    @functools.wraps(coro)
    def async_wrapper(self, *args, **kwargs):
        """Run a coroutine and wait for it to finish"""

        return self.loop.run_until_complete(coro(self, *args, **kwargs))

    return async_wrapper


def get_test_key(alg_name='ssh-ed25519', key_id=0):
    """Generate or return a key with the requested parameters"""

    params = (alg_name, key_id)

    try:
        key = _test_keys[params]
    except KeyError:
        key = asyncssh.generate_private_key(alg_name)
        _test_keys[params] = key

    return key


def run(cmd):
    """Run a command and return whether it succeeded"""

    try:
        subprocess.run(cmd, check=True, stdin=subprocess.DEVNULL,
                       stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as exc:
        logger.debug1('Error running command: %s', cmd)
        logger.output(exc.stderr, 'Error output from %s:', cmd[0])
        return False
    except OSError:
        return False
    else:
        return True


def _sshd_usable():
    """Return whether sshd can be started by this user

       An sshd which is installed but whose privilege separation
       directory or user is missing exits at startup, so sshd's
       test mode is used to check the setup before relying on it.

    """

    sshd = shutil.which('sshd')

    if not sshd:
        return False

    with tempfile.TemporaryDirectory() as tempdir:
        host_key = os.path.join(tempdir, 'host_key')

        get_test_key().write_private_key(host_key)
        os.chmod(host_key, 0o400)

        return run([os.path.abspath(sshd), '-t', '-h', host_key])


def _ssh_usable():
    """Return whether ssh can resolve a configuration for this user"""

    ssh = shutil.which('ssh')

    return bool(ssh) and run([ssh, '-G', '-F', '/dev/null', '127.0.0.1'])


sshd_available = _sshd_usable()
ssh_available = _ssh_usable()


def make_script(path, body):
    """Write an executable shell script standing in for a peer binary"""

    with open(path, 'w') as f:
        f.write('#!/bin/sh\n' + body)

    os.chmod(path, 0o755)

    return os.path.abspath(path)


class TempDirTestCase(unittest.TestCase):
    """Unit test class which operates in a temporary directory"""

    _tempdir = None
    _cwd = None

    @classmethod
    def setUpClass(cls):
        """Create temporary directory and set it as current directory"""

        cls._cwd = os.getcwd()
        cls._tempdir = tempfile.TemporaryDirectory()
        os.chdir(cls._tempdir.name)

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary directory"""

        os.chdir(cls._cwd)
        cls._tempdir.cleanup()


class AsyncTestCase(TempDirTestCase):
    """Unit test class which supports tests using asyncio"""

    loop = None

    @classmethod
    def setUpClass(cls):
        """Set up event loop to run async tests and run async class setup"""

        super().setUpClass()

        cls.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(cls.loop)

        try:
            cls.loop.run_until_complete(cls.asyncSetUpClass())
        except AttributeError:
            pass

    @classmethod
    def tearDownClass(cls):
        """Run async class teardown and close event loop"""

        try:
            cls.loop.run_until_complete(cls.asyncTearDownClass())
        except AttributeError:
            pass

        cls.loop.close()
        asyncio.set_event_loop(None)

        super().tearDownClass()

    def setUp(self):
        """Run async setup if any"""

        try:
            self.loop.run_until_complete(self.asyncSetUp())
        except AttributeError:
            pass

    def tearDown(self):
        """Run async teardown if any"""

        try:
            self.loop.run_until_complete(self.asyncTearDown())
        except AttributeError:
            pass

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

"""Logging for SSH interop scenarios

   All messages go to the `sshinterop` logger. Scenarios and peer
   processes log through child adapters which prefix each message
   with their context, such as `[scenario=client, port 2222]`.

"""

import logging


def _format_arg(arg):
    """Make a log argument readable

       Addresses given as `(host, port)` become `host, port N`,
       command lines given as lists are joined with spaces and
       bytes from peer processes are decoded.

    """

    if isinstance(arg, tuple) and len(arg) == 2:
        host, port = arg

        if not port:
            return host
        elif host:
            return '%s, port %d' % (host, port)
        else:
            return 'port %d' % port
    elif isinstance(arg, list):
        return ' '.join(str(a) for a in arg)
    elif isinstance(arg, bytes):
        return arg.decode('utf-8', errors='replace')
    else:
        return arg


def _format_output(output):
    """Indent captured peer output for appending to a log message"""

    if isinstance(output, bytes):
        output = output.decode('utf-8', errors='replace')

    # Output is appended to a message which is still %-formatted
    return ''.join('\n  | ' + line.replace('%', '%%')
                   for line in output.splitlines())


class _InteropLogger(logging.LoggerAdapter):
    """Logger adapter which prefixes messages with scenario context"""

    _debug_level = 1

    def __init__(self, parent=None, child=None, context=''):
        if parent is None:
            parent = logging.getLogger(__package__)

        self._context = context
        self._base = parent.getChild(child) if child else parent

        super().__init__(self._base, {})

    def _join_context(self, context):
        """Combine this logger's context with more context"""

        return ', '.join(c for c in (self._context, context) if c)

    def get_child(self, child=None, context=None):
        """Return a logger for a child name with more context"""

        return type(self)(self._base, child, self._join_context(context))

    def log(self, level, msg, *args, **kwargs):
        """Log a message with readable arguments"""

        super().log(level, msg, *map(_format_arg, args), **kwargs)

    def process(self, msg, kwargs):
        """Prefix context and append any peer output"""

        extra = kwargs.get('extra', {})
        context = self._join_context(extra.get('context'))

        if context:
            msg = '[%s] %s' % (context, msg)

        if extra.get('output'):
            msg += _format_output(extra['output'])

        return msg, kwargs

    @classmethod
    def set_debug_level(cls, level):
        """Set how much debug output to log"""

        if not 1 <= level <= 3:
            raise ValueError('Debug log level must be between 1 and 3')

        cls._debug_level = level

    def debug1(self, msg, *args, **kwargs):
        """Log a debug message about scenario progress"""

        self.debug(msg, *args, **kwargs)

    def debug2(self, msg, *args, **kwargs):
        """Log a detailed debug message, such as a peer command line"""

        if self._debug_level >= 2:
            self.debug(msg, *args, **kwargs)

    def output(self, output, msg, *args, **kwargs):
        """Log a debug message followed by captured peer output"""

        if self._debug_level >= 3:
            kwargs['extra'] = dict(kwargs.get('extra', {}), output=output)
            self.debug(msg, *args, **kwargs)


def set_log_level(level):
    """Set the log level of the SSH interop logger

       The level defaults to `NOTSET`, in which case the level of the
       root Python logger applies.

       :param level:
           The log level to set, as defined by the `logging` module
       :type level: `int` or `str`

    """

    logger.setLevel(level)


def set_debug_level(level):
    """Set how much debug output SSH interop scenarios log

       ===== ==============================================
       Level Logged at DEBUG
       ===== ==============================================
       1     Scenario progress and peer exit statuses
       2     Peer command lines as well
       3     Peer stdout and stderr as well
       ===== ==============================================

       Nothing is logged at debug level unless the log level of the
       SSH interop logger is DEBUG.

       :param level:
           The debug level to set
       :type level: `int`

    """

    logger.set_debug_level(level)


logger = _InteropLogger()

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

"""Foreign SSH peer processes"""

import asyncio
import os
import shutil

from .logging import logger
from .misc import EnvironmentUnavailable, SetupError, TransportError
from .misc import async_context_manager, open_file, read_file


# Time to wait for a peer to be reaped before killing it
_EXIT_GRACE = 0.5


def find_binary(name, path=None, env_var=None):
    """Locate a foreign peer binary

       An explicitly configured path takes precedence, followed by the
       environment variable named by env_var and finally a search of
       the directories in PATH.

       :param name:
           The name of the binary to search for
       :param path: (optional)
           An explicit path or name to use instead of name
       :param env_var: (optional)
           An environment variable which may hold a path override
       :type name: `str`
       :type path: `str`
       :type env_var: `str`

       :returns: The absolute path of the binary

       :raises: :exc:`EnvironmentUnavailable` if the binary can't be found

    """

    if not path and env_var:
        path = os.environ.get(env_var)

    binary = shutil.which(path or name)

    if not binary:
        raise EnvironmentUnavailable(path or name)

    # sshd refuses to re-exec itself unless started with an absolute path
    return os.path.abspath(binary)


def _format_options(options):
    """Convert a dict of OpenSSH config settings to -o arguments"""

    args = []

    for keyword, value in (options or {}).items():
        args.extend(('-o', '%s=%s' % (keyword, value)))

    return args


class PeerProcess:
    """A running foreign SSH peer

       Instances are async context managers. Leaving the context kills
       the process if it is still running and reaps it, so the process
       never outlives the scenario which started it.

       Error output goes to a log file rather than a pipe, since
       children forked by sshd for each connection can keep a pipe
       open after the daemon itself has been killed.

    """

    def __init__(self, process, binary, host, port, stderr_path=None):
        self._process = process
        self._binary = binary
        self._stderr_path = stderr_path
        self._stderr = b''

        self.host = host
        self.port = port

        self.logger = logger.get_child(context='pid=%d' % process.pid)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    @property
    def binary(self):
        """The path of the binary this process is running"""

        return self._binary

    @property
    def pid(self):
        """The process ID of this peer"""

        return self._process.pid

    @property
    def returncode(self):
        """The exit status of this peer, or `None` if it is running"""

        return self._process.returncode

    @property
    def stderr(self):
        """Error output collected from this peer after it was closed"""

        return self._stderr

    def has_exited(self):
        """Return whether this peer process has exited"""

        return self._process.returncode is not None

    async def close(self):
        """Kill this peer if it is running and wait for it to exit"""

        try:
            # An exited peer must be reaped by asyncio, not by kill()
            returncode = await asyncio.wait_for(self._process.wait(),
                                                _EXIT_GRACE)
        except asyncio.TimeoutError:
            self.logger.debug1('Killing %s', self._binary)

            try:
                self._process.kill()
            except ProcessLookupError: # pragma: no cover
                pass

            returncode = await self._process.wait()

        self.logger.debug1('%s exited with status %s', self._binary,
                           returncode)

        if self._stderr_path:
            try:
                self._stderr = read_file(self._stderr_path)
            except OSError as exc:
                self.logger.debug1('Unable to read error output: %s',
                                   str(exc))

        if self._stderr:
            self.logger.output(self._stderr, '%s error output:', self._binary)

        return returncode


@async_context_manager
async def start_sshd(binary, port, host_key_path, banner_path,
                     options=None, host='', stderr_path=None):
    """Start an OpenSSH daemon which sends a banner from a file

       The daemon is run in the foreground, listening on port and
       using the host key and banner file given.

       This function can be awaited to get the :class:`PeerProcess`
       or used as an async context manager, in which case the daemon
       is killed when the context is exited.

       :param binary:
           The path of the sshd binary to run
       :param port:
           The port the daemon should listen on
       :param host_key_path:
           The path of the daemon's private host key
       :param banner_path:
           The path of the file holding the banner to send
       :param options: (optional)
           Additional sshd config settings to pass with `-o`
       :param host: (optional)
           The address clients will use to reach the daemon
       :param stderr_path: (optional)
           A file to collect the daemon's error output in, or `None`
           to discard it
       :type binary: `str`
       :type port: `int`
       :type host_key_path: `str`
       :type banner_path: `str`
       :type options: `dict`
       :type host: `str`
       :type stderr_path: `str`

       :returns: :class:`PeerProcess`

       :raises: :exc:`SetupError` if the daemon can't be started

    """

    # pylint: disable=too-many-arguments

    cmd = [binary, '-D', '-p', str(port), '-h', str(host_key_path),
           '-o', 'Banner %s' % banner_path] + _format_options(options)

    logger.info('Starting %s on %s', binary, (host, port))
    logger.debug2('Running %s', cmd)

    try:
        if stderr_path:
            with open_file(stderr_path, 'wb') as stderr:
                process = await asyncio.create_subprocess_exec(
                    *cmd, stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL, stderr=stderr)
        else:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL)
    except OSError as exc:
        raise SetupError('Unable to start %s: %s' % (binary, exc)) from exc

    return PeerProcess(process, binary, host, port, stderr_path)


async def run_ssh(binary, host, port, username, options=None, timeout=None):
    """Run an OpenSSH client against a server and capture its output

       Host key checking is disabled and nothing is recorded in a
       known hosts file. No user configuration is read and batch mode
       is enabled, so the client never prompts.

       :param binary:
           The path of the ssh binary to run
       :param host:
           The server address to connect to
       :param port:
           The server port to connect to
       :param username:
           The username to authenticate as
       :param options: (optional)
           Additional ssh config settings to pass with `-o`
       :param timeout: (optional)
           Time in seconds to wait for the client to exit, or `None`
           to wait as long as it takes
       :type binary: `str`
       :type host: `str`
       :type port: `int`
       :type username: `str`
       :type options: `dict`
       :type timeout: `float`

       :returns: A tuple of the client's exit status and its combined
                 stdout and stderr output as `bytes`

       :raises: | :exc:`SetupError` if the client can't be started
                | :exc:`TransportError` if the client doesn't exit
                  within the timeout

    """

    cmd = [binary, '-F', '/dev/null',
           '-o', 'UserKnownHostsFile=/dev/null',
           '-o', 'StrictHostKeyChecking=no',
           '-o', 'BatchMode=yes'] + _format_options(options) + \
          ['%s@%s' % (username, host), '-p', str(port)]

    logger.info('Running %s against %s', binary, (host, port))
    logger.debug2('Running %s', cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd, stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT)
    except OSError as exc:
        raise SetupError('Unable to start %s: %s' % (binary, exc)) from exc

    try:
        output, _ = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        raise TransportError('%s did not exit within %s seconds' %
                             (binary, timeout)) from None
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()

    logger.debug1('%s exited with status %s', binary, process.returncode)
    logger.output(output, '%s output:', binary)

    return process.returncode, output

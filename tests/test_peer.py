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

"""Unit tests for foreign SSH peer processes"""

import asyncio
import os

from unittest.mock import patch

from sshinterop.misc import EnvironmentUnavailable, SetupError
from sshinterop.misc import TransportError
from sshinterop.peer import find_binary, run_ssh, start_sshd

from .util import AsyncTestCase, TempDirTestCase, asynctest, make_script


async def _wait_for_file(filename, timeout=5):
    """Wait for a fake peer to write a file"""

    loop = asyncio.get_event_loop()
    deadline = loop.time() + timeout

    while not os.path.exists(filename) and loop.time() < deadline:
        await asyncio.sleep(0.05)

    await asyncio.sleep(0.05)

    with open(filename) as f:
        return f.read().split()


class _TestFindBinary(TempDirTestCase):
    """Unit tests for locating peer binaries"""

    def test_explicit_path(self):
        """Test using an explicitly configured binary"""

        script = make_script('fake_sshd', 'exit 0\n')

        self.assertEqual(find_binary('sshd', script), script)

    def test_env_var(self):
        """Test overriding a binary with an environment variable"""

        script = make_script('env_sshd', 'exit 0\n')

        with patch.dict(os.environ, {'SSHINTEROP_SSHD': script}):
            self.assertEqual(find_binary('sshd', env_var='SSHINTEROP_SSHD'),
                             script)

    def test_explicit_path_overrides_env_var(self):
        """Test that an explicit path takes precedence"""

        script = make_script('explicit_sshd', 'exit 0\n')

        with patch.dict(os.environ, {'SSHINTEROP_SSHD': '/missing/sshd'}):
            self.assertEqual(find_binary('sshd', script, 'SSHINTEROP_SSHD'),
                             script)

    def test_search_path(self):
        """Test finding a binary in PATH"""

        os.mkdir('bin')
        script = make_script(os.path.join('bin', 'path_sshd'), 'exit 0\n')

        with patch.dict(os.environ, {'PATH': os.path.abspath('bin')}):
            self.assertEqual(find_binary('path_sshd'), script)

    def test_missing_binary(self):
        """Test that a missing binary is reported as unavailable"""

        with patch.dict(os.environ, {'PATH': os.path.abspath('.')}):
            with self.assertRaises(EnvironmentUnavailable) as exc:
                find_binary('no_such_sshd')

        self.assertEqual(exc.exception.binary, 'no_such_sshd')

    def test_not_executable(self):
        """Test that a file which can't be run is unavailable"""

        with open('not_executable', 'w') as f:
            f.write('#!/bin/sh\n')

        with self.assertRaises(EnvironmentUnavailable):
            find_binary('sshd', os.path.abspath('not_executable'))


class _TestPeerProcess(AsyncTestCase):
    """Unit tests for starting and stopping peer processes"""

    @asynctest
    async def test_start_sshd(self):
        """Test the arguments passed to sshd and its cleanup"""

        script = make_script('sshd_args', 'echo starting >&2\n'
                             'echo "$@" > sshd_args.out\n'
                             'exec sleep 30\n')

        async with start_sshd(script, 2222, 'host_key', 'banner',
                              {'LogLevel': 'DEBUG3'}, '127.0.0.1',
                              'sshd.err') as peer:
            args = await _wait_for_file('sshd_args.out')

            self.assertFalse(peer.has_exited())
            self.assertEqual(peer.binary, script)
            self.assertEqual(peer.port, 2222)
            self.assertGreater(peer.pid, 0)

        self.assertEqual(args, ['-D', '-p', '2222', '-h', 'host_key',
                                '-o', 'Banner', 'banner',
                                '-o', 'LogLevel=DEBUG3'])

        self.assertTrue(peer.has_exited())
        self.assertIsNotNone(peer.returncode)
        self.assertEqual(peer.stderr, b'starting\n')

    @asynctest
    async def test_killed_on_error(self):
        """Test that sshd is killed when the scenario fails"""

        script = make_script('sshd_error', 'exec sleep 30\n')

        with self.assertRaises(RuntimeError):
            async with start_sshd(script, 2222, 'host_key', 'banner') as peer:
                raise RuntimeError('Scenario failed')

        self.assertTrue(peer.has_exited())

    @asynctest
    async def test_sshd_exits(self):
        """Test a daemon which exits on its own"""

        script = make_script('sshd_exit', 'echo bad config >&2\nexit 3\n')

        peer = await start_sshd(script, 2222, 'host_key', 'banner',
                                stderr_path='sshd.err')

        self.assertEqual(await peer.close(), 3)
        self.assertTrue(peer.has_exited())
        self.assertEqual(peer.stderr, b'bad config\n')

    @asynctest
    async def test_sshd_start_failure(self):
        """Test a daemon which can't be started"""

        with self.assertRaises(SetupError):
            await start_sshd(os.path.abspath('missing_sshd'), 2222,
                             'host_key', 'banner')

    @asynctest
    async def test_run_ssh(self):
        """Test the arguments passed to ssh and its combined output"""

        script = make_script('ssh_args', 'echo "$@"\n'
                             'echo Hello World >&2\n'
                             'exit 255\n')

        returncode, output = await run_ssh(script, '127.0.0.1', 2222, 'user',
                                           {'LogLevel': 'INFO'})

        self.assertEqual(returncode, 255)

        args, banner = output.decode().splitlines()

        self.assertEqual(args.split(),
                         ['-F', '/dev/null',
                          '-o', 'UserKnownHostsFile=/dev/null',
                          '-o', 'StrictHostKeyChecking=no',
                          '-o', 'BatchMode=yes',
                          '-o', 'LogLevel=INFO',
                          'user@127.0.0.1', '-p', '2222'])
        self.assertEqual(banner, 'Hello World')

    @asynctest
    async def test_run_ssh_no_input(self):
        """Test that ssh gets no input to wait on"""

        script = make_script('ssh_cat', 'exec cat\n')

        returncode, output = await run_ssh(script, '127.0.0.1', 2222, 'user',
                                           timeout=5)

        self.assertEqual(returncode, 0)
        self.assertEqual(output, b'')

    @asynctest
    async def test_run_ssh_timeout(self):
        """Test an ssh which doesn't exit in time"""

        script = make_script('ssh_hang', 'exec sleep 30\n')

        with self.assertRaises(TransportError):
            await run_ssh(script, '127.0.0.1', 2222, 'user', timeout=0.2)

    @asynctest
    async def test_run_ssh_start_failure(self):
        """Test an ssh which can't be started"""

        with self.assertRaises(SetupError):
            await run_ssh(os.path.abspath('missing_ssh'), '127.0.0.1', 2222,
                          'user')

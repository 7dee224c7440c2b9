#!/usr/bin/env python3.6
#
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

# To run this program, the OpenSSH sshd and ssh binaries need to be
# in your PATH, or set SSHINTEROP_SSHD and SSHINTEROP_SSH to point
# at them. Pass a banner as the first argument to use something other
# than 'Hello World'.

import asyncio, logging, sys

import sshinterop

async def run_scenarios(banner: str) -> int:
    options = sshinterop.ScenarioOptions(banner=banner)

    scenarios = (('client', sshinterop.check_client_banner(options)),
                 ('server', sshinterop.check_server_banner(options)))

    results = await asyncio.gather(*(coro for _, coro in scenarios),
                                   return_exceptions=True)
    failures = 0

    for (role, _), result in zip(scenarios, results):
        if isinstance(result, sshinterop.EnvironmentUnavailable):
            print('%s: skipped: %s' % (role, str(result)))
        elif isinstance(result, Exception):
            print('%s: FAILED: %s' % (role, str(result)))
            failures += 1
        else:
            print('%s: ok: %s' % (role, result))

    return failures

logging.basicConfig(level=logging.INFO)

banner = sys.argv[1] if len(sys.argv) > 1 else sshinterop.DEFAULT_BANNER

sys.exit(1 if asyncio.run(run_scenarios(banner)) else 0)

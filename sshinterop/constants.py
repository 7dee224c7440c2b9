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

"""SSH interop harness constants"""

# pylint: disable=bad-whitespace

# Banner text used when none is configured
DEFAULT_BANNER                      = 'Hello World'

# Address peers are bound to and connected on
DEFAULT_HOST                        = '127.0.0.1'

# Username presented by both our client and the foreign client
DEFAULT_USERNAME                    = 'user'

# Only user accepted by the server's public key policy
PUBKEY_USERNAME                     = 'testuser'

# Host key algorithm used when generating a fixed signing key
DEFAULT_HOST_KEY_ALG                = 'ssh-ed25519'

# Startup window for a foreign daemon: 50 attempts, 100 msec apart
DEFAULT_CONNECT_RETRIES             = 50
DEFAULT_CONNECT_INTERVAL            = 0.1

# File modes required by OpenSSH for files it loads
BANNER_FILE_MODE                    = 0o444
HOST_KEY_FILE_MODE                  = 0o400

# Names of the foreign peer binaries
SSHD_BINARY                         = 'sshd'
SSH_BINARY                          = 'ssh'

# Environment variables which override binary lookup
SSHD_ENV_VAR                        = 'SSHINTEROP_SSHD'
SSH_ENV_VAR                         = 'SSHINTEROP_SSH'

# Roles a scenario can put our implementation in
ROLE_CLIENT                         = 'client'
ROLE_SERVER                         = 'server'

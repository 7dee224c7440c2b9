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

"""Host key handling for SSH interop scenarios"""

from pathlib import PurePath

import asyncssh

from .constants import DEFAULT_HOST_KEY_ALG, HOST_KEY_FILE_MODE
from .logging import logger
from .misc import SetupError, write_file


def load_host_key(host_key=None, alg_name=DEFAULT_HOST_KEY_ALG):
    """Return the signing key to use as a server host key

       :param host_key: (optional)
           An existing private key, the path to a file containing one,
           or `None` to generate a new key
       :param alg_name: (optional)
           The algorithm to use when a new key is generated
       :type host_key: :class:`asyncssh.SSHKey`, `str`, or `PurePath`
       :type alg_name: `str`

       :returns: :class:`asyncssh.SSHKey`

       :raises: :exc:`SetupError` if the key can't be loaded or generated

    """

    if isinstance(host_key, asyncssh.SSHKey):
        return host_key

    try:
        if isinstance(host_key, (str, PurePath)):
            logger.debug1('Loading host key from %s', str(host_key))
            return asyncssh.read_private_key(host_key)
        elif host_key is None:
            logger.debug1('Generating %s host key', alg_name)
            return asyncssh.generate_private_key(alg_name)
    except (OSError, asyncssh.KeyImportError,
            asyncssh.KeyGenerationError) as exc:
        raise SetupError('Unable to load host key: %s' % exc) from exc

    raise TypeError('Invalid host key, got %s' % type(host_key).__name__)


def write_host_key(key, filename):
    """Write a private key where an OpenSSH daemon will accept it

       The key is written in OpenSSH format and made readable only by
       its owner, since sshd refuses to load host keys which other
       users can read.

    """

    data = key.export_private_key('openssh')

    try:
        write_file(filename, data, perms=HOST_KEY_FILE_MODE)
    except OSError as exc:
        raise SetupError('Unable to write host key: %s' % exc) from exc

    logger.debug2('Wrote %s host key to %s', key.get_algorithm(),
                  str(filename))

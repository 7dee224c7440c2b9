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

"""An interoperability harness for SSH authentication banners"""

from .version import __author__, __author_email__, __url__, __version__

# pylint: disable=wildcard-import

from .constants import *

# pylint: enable=wildcard-import

from .exchange import ExchangeResult, BannerCapture, ServerExchange
from .exchange import allow_pubkey_user, fixed_banner, run_client_exchange

from .keys import load_host_key, write_host_key

from .logging import logger, set_log_level, set_debug_level

from .misc import Error, EnvironmentUnavailable, SetupError
from .misc import TransportError, PeerExited, HandshakeError, BannerMismatch

from .peer import PeerProcess, find_binary, start_sshd, run_ssh

from .ports import get_free_port, create_listener

from .retry import connect_with_retry

from .scenario import ScenarioOptions, BannerResult
from .scenario import check_banner, check_banner_output
from .scenario import check_client_banner, check_server_banner

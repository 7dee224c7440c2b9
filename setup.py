#!/usr/bin/env python3.6

# Copyright (c) 2013-2022 by Ron Frederick <ronf@timeheart.net> and others.
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

from os import path
from setuptools import setup

base_dir = path.abspath(path.dirname(__file__))

with open(path.join(base_dir, 'sshinterop', 'version.py')) as version:
    exec(version.read())

setup(name = 'sshinterop',
      version = __version__,
      author = __author__,
      author_email = __author_email__,
      url = __url__,
      description = 'SSH authentication banner interoperability harness',
      license = 'Eclipse Public License v2.0',
      packages = ['sshinterop'],
      python_requires = '>= 3.6',
      install_requires = ['asyncssh >= 2.11'],
      extras_require = {
          'tests': ['pytest >= 6.0']
      },
      classifiers = [
          'Development Status :: 4 - Beta',
          'Environment :: Console',
          'Intended Audience :: Developers',
          'License :: OSI Approved',
          'Operating System :: POSIX',
          'Programming Language :: Python :: 3',
          'Topic :: Internet',
          'Topic :: Security :: Cryptography',
          'Topic :: Software Development :: Testing',
          'Topic :: System :: Networking'])

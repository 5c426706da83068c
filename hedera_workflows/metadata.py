# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Client identification for HTTP requests to mirror nodes.

Every request made by ``MirrorNodeClient`` carries a header naming this
package and its installed version, e.g.
``x-hedera-workflows-client: hedera-workflows/0.1.0``.
"""

import importlib.metadata as metadata

# Package name constant for metadata lookup
PACKAGE_NAME = "hedera-workflows"


class Metadata:
    CLIENT_HEADER = "x-hedera-workflows-client"

    @staticmethod
    def get_client_header_val() -> str:
        """
        :raises PackageNotFoundError: If the package is not installed.
        """
        version = metadata.version(PACKAGE_NAME)
        return f"hedera-workflows/{version}"

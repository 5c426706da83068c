"""
Hedera workflow examples - the three demonstration scripts.

Each script walks through one workflow call by call on a ``LedgerSession``,
printing ids and balances as it goes. The same flows are available as
ordered step lists in ``hedera_workflows.flows`` and through
``python -m hedera_workflows.cli``.

Examples:

    - non_fungible_token.py: NFT collection, mint, associate and transfer
    - fungible_token.py: fungible token creation and transfer
    - hello_hedera.py: deploy and call the HelloHedera smart contract
    - common.py: shared configuration

Quick Start:
    Put the operator credentials in ``.env`` (or export them)::

        MY_ACCOUNT_ID=0.0.1234
        MY_PRIVATE_KEY=302e020100300506032b657004220420...

    then run a script::

        python -m examples.non_fungible_token
        python -m examples.fungible_token
        python -m examples.hello_hedera ./HelloHedera.json

    Set ``HEDERA_NETWORK=local`` to run against the in-memory ledger instead
    of testnet.

Safety:
    - All examples default to testnet
    - Generated account keys are not persisted
    - Every step costs real (test) hbar on a network
"""

"""Protocol constants for the pool runner.

Centralizes well-known addresses and pool parameters.
"""

# Maximum uint256 value
UINT256_MAX = 2**256 - 1

# Fee applied by SimpleSwap on the input amount: 997/1000 is kept (0.3% fee)
FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000

# ERC-20 decimals used by every token this runner deploys
TOKEN_DECIMALS = 18

# Conventional "dead" address used as a burn sink
BURN_ADDRESS = "0x000000000000000000000000000000000000dEaD"

# Compiler version matching the `pragma solidity ^0.8.20` of the bundled sources
DEFAULT_SOLC_VERSION = "0.8.20"

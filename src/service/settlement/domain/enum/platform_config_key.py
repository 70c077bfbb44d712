from enum import StrEnum


class PlatformConfigKey(StrEnum):
    PLATFORM_FEE_PERCENTAGE = 'PLATFORM_FEE_PERCENTAGE'  # primary-sale fee, fraction 0..1
    PLATFORM_WALLET_ADDRESS = 'PLATFORM_WALLET_ADDRESS'
    RESALE_FEE_PERCENTAGE = 'RESALE_FEE_PERCENTAGE'  # absent means no resale split

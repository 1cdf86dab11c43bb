"""
Module: ledger_kernel.db.types
Responsibility: Currency constants and ISO 4217 validation shared by the
    reference engine and the assemblers.
Architecture position: Kernel > DB.  May be imported by models/, domain
    services and selectors.  MUST NOT import from any of those layers.

Invariants enforced:
    - ISO 4217 enforcement: validate_currency() rejects any string that is
      not a recognized 3-character currency code.

Failure modes:
    - InvalidCurrencyError on an invalid ISO 4217 code.
"""

# Default smallest currency unit (1/100)
DEFAULT_CURRENCY_FRACTION = 100

ISO_4217_CURRENCIES: set[str] = {
    # Major currencies
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    # Other currencies (alphabetical)
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BOV", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CHE", "CHW", "CLF", "CLP", "CNY", "COP", "COU", "CRC", "CUC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HRK", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MXV", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SLL", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "USN", "UYI", "UYU", "UYW", "UZS",
    "VED", "VES", "VND", "VUV",
    "WST",
    "XAF", "XAG", "XAU", "XBA", "XBB", "XBC", "XBD", "XCD", "XDR", "XOF", "XPD", "XPF", "XPT", "XSU", "XTS", "XUA", "XXX",
    "YER",
    "ZAR", "ZMW", "ZWL",
}


class InvalidCurrencyError(ValueError):
    """Raised when an invalid ISO 4217 currency code is provided."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


def validate_currency(currency: str) -> str:
    """
    Validate an ISO 4217 code and return it upper-cased and trimmed.

    Raises:
        InvalidCurrencyError: If the code is not a known currency.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized


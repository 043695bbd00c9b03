"""
Module: ledger_kernel.db.types
Responsibility: Column sizes and validators for monetary and currency
    values.  Centralizes precision and currency validation so that
    models and services use identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - ISO 4217 enforcement: validate_currency() rejects any string that is
      not a recognized 3-character currency code.
    - No floats: parse_amount() refuses float input outright; amounts are
      Decimal end to end.

Failure modes:
    - InvalidCurrencyError on an unknown currency code.
    - InvalidAmountError on non-numeric, non-finite, or non-positive amounts.
"""

from decimal import Decimal, InvalidOperation

from ledger_kernel.exceptions import InvalidAmountError, InvalidCurrencyError


CURRENCY_CODE_LENGTH = 3
DESCRIPTION_LENGTH = 500
MONEY_DECIMAL_PLACES = 9


def parse_amount(value: Decimal | int | str) -> Decimal:
    """
    Parse and validate an obligation or transaction amount.

    Direction is carried by the transaction kind, so the amount itself must
    be strictly positive.

    Raises:
        InvalidAmountError: float input, unparseable text, NaN/Infinity,
            zero or negative values, or more than nine decimal places.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "must be a Decimal, int or numeric string")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(value, "not a number") from None
    if not amount.is_finite():
        raise InvalidAmountError(value, "must be finite")
    if amount <= 0:
        raise InvalidAmountError(value, "must be greater than zero")
    if amount.as_tuple().exponent < -MONEY_DECIMAL_PLACES:
        raise InvalidAmountError(
            value, f"at most {MONEY_DECIMAL_PLACES} decimal places"
        )
    return amount


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
})


def validate_currency(currency: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Returns:
        The uppercase, trimmed code.

    Raises:
        InvalidCurrencyError: If the code is not recognized.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized

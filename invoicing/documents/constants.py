"""Static lookup tables and sentinel literals shared by every vendor.

External consumers of the canonical rows depend on the sentinel values, so they
must not change.
"""

from types import MappingProxyType

NULL_STRING = "[ILEGIBLE]"
NULL_FLOAT = -0.01
NULL_NUMBER = -1
NULL_DATE = "1900-01-01"
NULL_IBUA = -1.0

# Valid packaging codes printed on vendor invoices
EMBALAJES: frozenset[str] = frozenset(
    {
        "UN",
        "CJ",
        "PZA",
        "BOT",
        "ST",
        "PQT",
        "UNIDAD",
        "PAC",
        "CAJA",
        "CAJ",
        "LAT",
        "UND",
        "SXP",
        "PAQ",
        "SIX",
    }
)

# Packaging codes whose quantity is counted in packs rather than units
EMBALAJES_CAJA: frozenset[str] = frozenset({"CAJA"})

# OCR business name -> canonical catalog name
RAZON_SOCIAL: MappingProxyType[str, str] = MappingProxyType({"Coca-Cola": "COCA COLA"})

# Description of credit/return rows
REDUCCION = "REDUCCION"

DATE_FORMAT = "%d/%m/%Y"

# Digits the OCR vendor tends to confuse, by the digit it actually printed
OCR_DIGIT_CONFUSIONS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "8": ("0", "6", "9"),
        "9": ("0", "4"),
        "6": ("0", "8"),
        "5": ("6", "8"),
        "1": ("7", "4"),
        "7": ("1", "4"),
        "4": ("1", "9"),
        "3": ("8", "5"),
    }
)

ERROR_DATE_FORMAT = "Fecha inválida (formato)"
ERROR_DATE_OBSOLETE = "Fecha obsoleta"
ERROR_INVOICE_NUMBER = "Número de factura inválido"

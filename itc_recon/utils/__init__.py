from itc_recon.utils.gstin import (
    validate_gstin, normalize_gstin,
    generate_gstin_check_digit, normalize_invoice_number,
)
from itc_recon.utils.helpers import (
    generate_uid, to_decimal, money, percentage_difference,
    parse_return_date, parse_return_period, is_valid_return_period,
    financial_year_from_date, financial_year_end, calculate_interest, format_inr,
)

def mask_value(value: str) -> str:
    if not isinstance(value, str):
        return value
    if '@' in value:  # email
        name, _, domain = value.partition('@')
        return (name[:2] + '***@' + domain) if name else '***@' + domain
    if len(value) > 12:
        return value[:4] + '...' + value[-4:]
    return '***'


def mask_account_number(value: str, visible: int = 4) -> str:
    """Keep only the trailing digits of a bank account or PromptPay id."""
    if not value:
        return ''
    digits = ''.join(ch for ch in value if ch.isalnum())
    if len(digits) <= visible:
        return '*' * len(digits)
    return '*' * (len(digits) - visible) + digits[-visible:]

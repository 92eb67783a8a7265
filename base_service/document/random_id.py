import secrets
import string


ID_ALPHABET = string.ascii_letters + string.digits
""" Letters and digits only, so ids are safe inside embedded paths, field paths and urls. """

def random_id(length: int = 24) -> str:
    # 24 characters gives roughly 142 bits of randomness
    if length < 1:
        raise ValueError("Random ids need at least one character.")
    return ''.join(secrets.choice(ID_ALPHABET) for _ in range(length))

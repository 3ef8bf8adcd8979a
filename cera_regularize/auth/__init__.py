from .cookies import COOKIE_FILE_NAME, load_cookies, read_cookie_file, save_cookies

__all__ = ["COOKIE_FILE_NAME", "load_cookies", "read_cookie_file", "save_cookies"]

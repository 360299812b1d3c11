"""Locale message bundles: cookie-selected locale, dotted key lookup, interpolation"""
import json
import logging
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

LOCALES = ('en', 'ja', 'zh', 'es')
DEFAULT_LOCALE = 'en'
LOCALE_COOKIE_NAME = 'locale'
LOCALE_NAMES = {
    'en': 'English',
    'ja': '日本語',
    'zh': '简体中文',
    'es': 'Español',
}

MESSAGES_DIR = Path(__file__).resolve().parent / 'messages'


def is_valid_locale(locale):
    return locale in LOCALES


def get_locale(request):
    """Locale from the request cookie, falling back to the default"""
    locale = request.COOKIES.get(LOCALE_COOKIE_NAME) if request is not None else None
    if locale and is_valid_locale(locale):
        return locale
    return DEFAULT_LOCALE


@lru_cache(maxsize=None)
def get_messages(locale):
    """Load a locale bundle; unknown or unreadable bundles fall back to the default"""
    if not is_valid_locale(locale):
        locale = DEFAULT_LOCALE
    try:
        with open(MESSAGES_DIR / f'{locale}.json', encoding='utf-8') as fh:
            return json.load(fh)
    except (OSError, ValueError) as e:
        if locale == DEFAULT_LOCALE:
            raise
        logger.warning(f"Could not load messages for {locale}: {e}")
        return get_messages(DEFAULT_LOCALE)


def get_nested_value(messages, path):
    """Dotted key lookup; a miss returns the key itself"""
    result = messages
    for key in path.split('.'):
        if isinstance(result, dict) and key in result:
            result = result[key]
        else:
            return path
    return result if isinstance(result, str) else path


def translate(messages, key, **params):
    text = get_nested_value(messages, key)
    for name, value in params.items():
        text = text.replace('{' + name + '}', str(value))
    return text


def get_translator(locale):
    messages = get_messages(locale)

    def t(key, **params):
        return translate(messages, key, **params)
    return t

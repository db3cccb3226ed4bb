"""
imeiwatch/fields.py
Groups a device's raw detail payload into display sections.

Static lookup table: field name → category. Anything not listed lands
in 'outros'. Category order below is the order sections are shown in.
"""

import json
import re
from typing import Any, Dict, Mapping

CATEGORY_FIELDS: Dict[str, tuple] = {
    'identificacao': ('imei', 'iccid', 'version', 'mcu'),
    'status':        ('status', 'mode', 'csq', 'bat', 'power', 'voltage', 'temperature'),
    'tempo':         ('firstTime', 'lastTime', 'todayLogin', 'offLineDays', 'daysOffline'),
    'rede':          ('server', 'getIp'),
    'configuracao':  ('config', 'settings', 'parameters', 'selfCheckParam'),
    'logs':          ('log', 'logs', 'history', 'events'),
    'gps':           ('gps', 'latitude', 'longitude', 'location', 'position'),
    'alertas':       ('alarm', 'alert', 'warning', 'error'),
    'diagnostico':   ('diagnostic', 'health', 'check', 'test'),
    'outros':        (),
}

DEFAULT_CATEGORY = 'outros'

FIELD_CATEGORIES: Dict[str, str] = {
    name: category
    for category, names in CATEGORY_FIELDS.items()
    for name in names
}

CATEGORY_TITLES = {
    'identificacao': 'Identificação',
    'status':        'Status',
    'tempo':         'Tempo',
    'rede':          'Rede',
    'configuracao':  'Configurações',
    'logs':          'Logs',
    'gps':           'GPS',
    'alertas':       'Alertas',
    'diagnostico':   'Diagnóstico',
    'outros':        'Outros',
}

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def category_for(field_name: str) -> str:
    return FIELD_CATEGORIES.get(field_name, DEFAULT_CATEGORY)


def group_fields(details: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Every category key is present, empty ones included."""
    groups: Dict[str, Dict[str, Any]] = {category: {} for category in CATEGORY_FIELDS}
    for key, value in (details or {}).items():
        groups[category_for(key)][key] = value
    return groups


def format_key(key: str) -> str:
    """'selfCheckParam' → 'Self Check Param', 'getIP' → 'Get IP'."""
    spaced = _CAMEL_BOUNDARY.sub(' ', key.strip())
    return spaced[:1].upper() + spaced[1:]


def format_value(value: Any) -> str:
    if value is None:
        return '-'
    if isinstance(value, bool):
        return 'Sim' if value else 'Não'
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)

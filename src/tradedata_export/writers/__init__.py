# src/tradedata_export/writers/__init__.py

from .excel import ExcelWriter, friendly_header

__all__ = ['ExcelWriter', 'friendly_header']

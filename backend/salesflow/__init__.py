"""工业设备销售交付流程引擎"""

__version__ = "1.0.0"

"""Age-band fever ratio reporting for weekly spreadsheet exports."""

__version__ = "0.1.0"

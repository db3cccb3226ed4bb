"""
imeiwatch — IMEI connectivity status monitor.

Validates a batch of IMEIs, looks up each device's last contact on the
tracking service, buckets the devices by days offline and builds the
statistics and workbook export for the batch.
"""

__version__ = '1.0.0'

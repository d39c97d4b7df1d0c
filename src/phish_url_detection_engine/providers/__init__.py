"""Remote scanner adapters."""

from phish_url_detection_engine.providers.scanner_api import RemoteScanner, ScannerApiClient, normalize_remote_result

__all__ = ["RemoteScanner", "ScannerApiClient", "normalize_remote_result"]

#!/usr/bin/env python3
"""
Export Exception Classes
"""

class ExportError(Exception):
    """Base exception for PDF export errors"""
    pass

class RunError(ExportError):
    """Raised when the whole export run cannot proceed"""
    pass

class ConfigurationError(RunError):
    """Raised when targets or settings are invalid"""
    pass

class ServerStartError(RunError):
    """Raised when the static file server cannot bind its port"""
    pass

class BrowserLaunchError(RunError):
    """Raised when the headless browser fails to launch"""
    pass

class TargetError(ExportError):
    """Raised when a single target cannot be exported"""

    def __init__(self, target_name: str, message: str):
        super().__init__(f"[{target_name}] {message}")
        self.target_name = target_name

class NavigationError(TargetError):
    """Raised when a page does not load"""
    pass

class PDFWriteError(TargetError):
    """Raised when a PDF cannot be produced or written"""
    pass

"""ftpclient: a blocking FTP client with passive mode and resumable transfers."""

__version__ = "1.0.0"

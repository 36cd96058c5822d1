"""FTP protocol module for ftpclient.

This module handles all FTP protocol functionality:
- ResponseParser: Single and multi-line reply parsing
- PassiveChannelNegotiator: PASV data connections
- ControlSession: Control connection and login state machine
- TransferEngine: Resumable upload and download
- DirectoryOperations: Listing, rename, delete, mkdir, directory upload
- FTPClient: Facade wiring the above together
- Exceptions: FTP-specific error types
"""

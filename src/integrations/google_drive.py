"""
Google Drive Integration

Folder lookup, PDF export and file housekeeping for the report job.
"""

import io
import logging
from typing import List, Dict, Any, Optional

from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from .google_auth import GOOGLE_API_ERRORS

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
PDF_MIME_TYPE = 'application/pdf'


class GoogleDriveError(Exception):
    """Raised when a Drive call the caller depends on fails"""


class GoogleDriveIntegration:
    """Integration with Google Drive API v3"""

    def __init__(self, service: Any):
        """
        Initialize Google Drive integration

        Args:
            service: Discovery client from build('drive', 'v3', ...)
        """
        self.service = service
        self.logger = logging.getLogger("TaskRelay.GoogleDrive")

    def get_folder(self, folder_id: str) -> Optional[Dict[str, Any]]:
        """
        Look up a folder by id

        Returns:
            Folder metadata (id, name), or None if it does not exist or is
            not a folder

        Raises:
            GoogleDriveError: on any other API error
        """
        try:
            folder = self.service.files().get(
                fileId=folder_id,
                fields='id, name, mimeType, trashed',
                supportsAllDrives=True,
            ).execute()
        except GOOGLE_API_ERRORS as e:
            if isinstance(e, HttpError) and e.resp.status == 404:
                return None
            raise GoogleDriveError(f"Failed to look up folder {folder_id}: {e}") from e

        if folder.get('mimeType') != FOLDER_MIME_TYPE or folder.get('trashed'):
            return None
        return folder

    def find_files_by_name(self, folder_id: str, name: str) -> List[Dict[str, Any]]:
        """
        List non-trashed files in a folder with exactly this name

        Raises:
            GoogleDriveError: if the listing fails
        """
        escaped = name.replace('\\', '\\\\').replace("'", "\\'")
        query = f"name = '{escaped}' and '{folder_id}' in parents and trashed = false"
        try:
            response = self.service.files().list(
                q=query,
                fields='files(id, name)',
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ).execute()
        except GOOGLE_API_ERRORS as e:
            raise GoogleDriveError(f"Failed to search for '{name}': {e}") from e
        return response.get('files', [])

    def export_pdf(self, file_id: str, folder_id: str, name: str) -> Dict[str, Any]:
        """
        Export a Google Sheets/Docs file as PDF and store it in a folder

        Returns:
            Metadata (id, name) of the created PDF file

        Raises:
            GoogleDriveError: if export or upload fails
        """
        self.logger.info("Exporting spreadsheet to PDF...")
        try:
            content = self.service.files().export(
                fileId=file_id, mimeType=PDF_MIME_TYPE
            ).execute()
            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=PDF_MIME_TYPE)
            created = self.service.files().create(
                body={'name': name, 'parents': [folder_id], 'mimeType': PDF_MIME_TYPE},
                media_body=media,
                fields='id, name',
                supportsAllDrives=True,
            ).execute()
        except GOOGLE_API_ERRORS as e:
            raise GoogleDriveError(f"Failed to export PDF '{name}': {e}") from e

        self.logger.info(f"PDF file created: {created.get('name', name)}")
        return created

    def trash_file(self, file_id: str) -> bool:
        """
        Move a file to the trash

        Returns:
            True on success, False on any API error (already logged)
        """
        try:
            self.service.files().update(
                fileId=file_id,
                body={'trashed': True},
                supportsAllDrives=True,
            ).execute()
            return True
        except GOOGLE_API_ERRORS as e:
            self.logger.error(f"Failed to trash file {file_id}: {e}")
            return False

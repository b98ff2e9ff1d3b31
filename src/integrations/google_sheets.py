"""
Google Sheets Integration

Creates the working spreadsheet for the report, writes its rows and applies
the (purely cosmetic) formatting.
"""

import logging
from typing import List, Dict, Any, Sequence

from .google_auth import GOOGLE_API_ERRORS

SHEET_TITLE = 'Uncompleted Tasks'

# #f3f3f3
PROJECT_HEADER_BACKGROUND = {'red': 0.953, 'green': 0.953, 'blue': 0.953}
TASK_COLUMN_WIDTH = 400


class GoogleSheetsError(Exception):
    """Raised when a spreadsheet cannot be created or written"""


class GoogleSheetsIntegration:
    """Integration with Google Sheets API v4"""

    def __init__(self, service: Any):
        """
        Initialize Google Sheets integration

        Args:
            service: Discovery client from build('sheets', 'v4', ...)
        """
        self.service = service
        self.logger = logging.getLogger("TaskRelay.GoogleSheets")

    def create_spreadsheet(self, title: str) -> Dict[str, Any]:
        """
        Create a spreadsheet with a single tab named SHEET_TITLE

        Returns:
            {'spreadsheet_id': ..., 'sheet_id': ...}
        """
        self.logger.info(f'Creating new spreadsheet: "{title}"')
        body = {
            'properties': {'title': title},
            'sheets': [{'properties': {'title': SHEET_TITLE}}],
        }
        try:
            created = self.service.spreadsheets().create(
                body=body,
                fields='spreadsheetId,sheets.properties.sheetId',
            ).execute()
        except GOOGLE_API_ERRORS as e:
            raise GoogleSheetsError(f"Failed to create spreadsheet '{title}': {e}") from e

        return {
            'spreadsheet_id': created['spreadsheetId'],
            'sheet_id': created['sheets'][0]['properties']['sheetId'],
        }

    def append_rows(self, spreadsheet_id: str, rows: List[List[str]]) -> None:
        """Append rows to the report tab, starting at A1 on an empty sheet"""
        try:
            self.service.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=f"'{SHEET_TITLE}'!A1",
                valueInputOption='RAW',
                insertDataOption='INSERT_ROWS',
                body={'values': rows},
            ).execute()
        except GOOGLE_API_ERRORS as e:
            raise GoogleSheetsError(f"Failed to write rows: {e}") from e

    def apply_report_formatting(
        self,
        spreadsheet_id: str,
        sheet_id: int,
        title_row: int,
        project_header_rows: Sequence[int],
        column_header_rows: Sequence[int],
    ) -> None:
        """
        Style the report

        Row indexes are zero-based. Title and project header rows are merged
        across the two columns.
        """
        requests = [
            _merge(sheet_id, title_row),
            _text_format(sheet_id, title_row, 0, 1, bold=True, font_size=16,
                         alignment='CENTER'),
        ]
        for row in project_header_rows:
            requests.append(_merge(sheet_id, row))
            requests.append(_text_format(sheet_id, row, 0, 1, bold=True, font_size=12,
                                         background=PROJECT_HEADER_BACKGROUND))
        for row in column_header_rows:
            requests.append(_text_format(sheet_id, row, 0, 2, bold=True))

        requests.extend([
            {
                'updateDimensionProperties': {
                    'range': {'sheetId': sheet_id, 'dimension': 'COLUMNS',
                              'startIndex': 0, 'endIndex': 1},
                    'properties': {'pixelSize': TASK_COLUMN_WIDTH},
                    'fields': 'pixelSize',
                }
            },
            {
                'autoResizeDimensions': {
                    'dimensions': {'sheetId': sheet_id, 'dimension': 'COLUMNS',
                                   'startIndex': 1, 'endIndex': 2},
                }
            },
            {
                'repeatCell': {
                    'range': {'sheetId': sheet_id, 'startColumnIndex': 0, 'endColumnIndex': 1},
                    'cell': {'userEnteredFormat': {'wrapStrategy': 'WRAP'}},
                    'fields': 'userEnteredFormat.wrapStrategy',
                }
            },
        ])

        try:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={'requests': requests},
            ).execute()
        except GOOGLE_API_ERRORS as e:
            raise GoogleSheetsError(f"Failed to format spreadsheet: {e}") from e

        self.logger.info("Spreadsheet has been populated and formatted.")


def _row_range(sheet_id: int, row: int, start_col: int, end_col: int) -> Dict[str, int]:
    return {
        'sheetId': sheet_id,
        'startRowIndex': row,
        'endRowIndex': row + 1,
        'startColumnIndex': start_col,
        'endColumnIndex': end_col,
    }


def _merge(sheet_id: int, row: int) -> Dict[str, Any]:
    return {'mergeCells': {'range': _row_range(sheet_id, row, 0, 2), 'mergeType': 'MERGE_ALL'}}


def _text_format(sheet_id, row, start_col, end_col, bold=False, font_size=None,
                 alignment=None, background=None) -> Dict[str, Any]:
    text_format = {'bold': bold}
    fields = ['userEnteredFormat.textFormat.bold']
    if font_size:
        text_format['fontSize'] = font_size
        fields.append('userEnteredFormat.textFormat.fontSize')

    fmt = {'textFormat': text_format}
    if alignment:
        fmt['horizontalAlignment'] = alignment
        fields.append('userEnteredFormat.horizontalAlignment')
    if background:
        fmt['backgroundColor'] = background
        fields.append('userEnteredFormat.backgroundColor')

    return {
        'repeatCell': {
            'range': _row_range(sheet_id, row, start_col, end_col),
            'cell': {'userEnteredFormat': fmt},
            'fields': ','.join(fields),
        }
    }

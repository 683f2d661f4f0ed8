"""
Excel processing service for guest list import/export
"""

import io
from typing import Dict, List, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from rsvp_manager.models import WeddingEvent
from rsvp_manager.schemas.guest import GuestCreate
from rsvp_manager.services.guest_service import GuestService
from rsvp_manager.services.repositories import GuestRepo

SHEET_NAME = "Guest List"

class ExcelService:
    """Service for handling Excel operations"""

    REQUIRED_COLUMNS = ["name"]
    OPTIONAL_COLUMNS = ["phone", "email", "side", "group", "expected guests", "notes"]
    VALID_SIDES = {"bride", "groom", "both"}
    VALID_GROUPS = {"family", "friends", "work", "other"}

    @staticmethod
    def create_template() -> bytes:
        """Create Excel template with the supported columns"""
        df = pd.DataFrame(columns=[
            "Name", "Phone", "Email", "Side", "Group", "Expected Guests", "Notes"
        ])

        # Add sample data for guidance
        sample_data = [
            ["Dana Levi", "050-123-4567", "dana@example.com", "bride", "family", 2, ""],
            ["Yossi Cohen", "052-765-4321", "", "groom", "friends", 1, "Vegetarian"],
            ["Noa Katz", "+972 54 111 2222", "", "both", "work", 3, ""],
        ]

        for row in sample_data:
            df.loc[len(df)] = row

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)

        return buffer.getvalue()

    @staticmethod
    def _column_mapping(df: pd.DataFrame) -> Dict[str, str]:
        column_mapping = {}
        for col in df.columns:
            col_lower = str(col).lower().strip()
            if col_lower == "name" or col_lower == "full name":
                column_mapping["name"] = col
            elif "phone" in col_lower:
                column_mapping["phone"] = col
            elif "mail" in col_lower:
                column_mapping["email"] = col
            elif "side" in col_lower:
                column_mapping["side"] = col
            elif "group" in col_lower:
                column_mapping["group"] = col
            elif "expected" in col_lower or "count" in col_lower:
                column_mapping["expected"] = col
            elif "note" in col_lower:
                column_mapping["notes"] = col
        return column_mapping

    @staticmethod
    def validate_excel_structure(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate Excel file structure"""
        errors = []

        column_mapping = ExcelService._column_mapping(df)
        missing_columns = [col for col in ExcelService.REQUIRED_COLUMNS if col not in column_mapping]
        if missing_columns:
            errors.append(f"Missing required columns: {', '.join(missing_columns)}")

        return len(errors) == 0, errors

    @staticmethod
    def validate_data_constraints(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate side/group values and expected guest counts"""
        errors = []
        column_mapping = ExcelService._column_mapping(df)

        if "expected" in column_mapping:
            counts = pd.to_numeric(df[column_mapping["expected"]], errors="coerce")
            present = df[column_mapping["expected"]].notna()
            invalid = df.index[present & (counts.isna() | (counts < 1))]
            for index in invalid:
                errors.append(f"Row {index + 2}: expected guests must be a number of at least 1")

        for key, valid in (("side", ExcelService.VALID_SIDES), ("group", ExcelService.VALID_GROUPS)):
            if key not in column_mapping:
                continue
            for index, value in df[column_mapping[key]].items():
                if pd.isna(value) or str(value).strip() == "":
                    continue
                if str(value).strip().lower() not in valid:
                    errors.append(f"Row {index + 2}: invalid {key} '{value}'")

        return len(errors) == 0, errors

    @staticmethod
    def _cell(row, column_mapping: Dict[str, str], key: str):
        if key not in column_mapping:
            return None
        value = row[column_mapping[key]]
        if pd.isna(value):
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def parse_guests(df: pd.DataFrame) -> List[GuestCreate]:
        column_mapping = ExcelService._column_mapping(df)
        guests = []
        for _, row in df.iterrows():
            name = ExcelService._cell(row, column_mapping, "name")
            # Skip empty rows
            if not name:
                continue

            phone = ExcelService._cell(row, column_mapping, "phone")
            if phone and phone.endswith(".0"):
                # Numeric cells lose the leading zero and gain a decimal part
                phone = "0" + phone[:-2]

            expected = ExcelService._cell(row, column_mapping, "expected")
            side = ExcelService._cell(row, column_mapping, "side")
            group = ExcelService._cell(row, column_mapping, "group")
            guests.append(GuestCreate(
                name=name,
                phone_number=phone,
                email=ExcelService._cell(row, column_mapping, "email"),
                side=side.lower() if side else None,
                group_name=group.lower() if group else None,
                expected_guests=int(float(expected)) if expected else 1,
                notes=ExcelService._cell(row, column_mapping, "notes"),
            ))
        return guests

    @staticmethod
    def process_excel_upload(file_content: bytes, event: WeddingEvent, db: Session) -> Tuple[bool, List[str], int]:
        """Import guests from an uploaded workbook"""
        try:
            df = pd.read_excel(io.BytesIO(file_content))
        except (ValueError, OSError) as e:
            return False, [f"Error reading Excel file: {str(e)}"], 0

        valid_structure, structure_errors = ExcelService.validate_excel_structure(df)
        if not valid_structure:
            return False, structure_errors, 0

        valid_data, data_errors = ExcelService.validate_data_constraints(df)
        if not valid_data:
            return False, data_errors, 0

        rows = ExcelService.parse_guests(df)
        if not rows:
            return False, ["No guests found in file"], 0

        # Duplicate phones and plan limits raise from the guest service
        guests = GuestService.bulk_import(db, event, rows)
        return True, [], len(guests)

    @staticmethod
    def export_current_data(event_id: int, db: Session, include_rsvp: bool = True) -> bytes:
        """Export current guest data to Excel"""
        data = []
        for guest in GuestRepo.list_for_event(db, event_id):
            row = {
                "Name": guest.name,
                "Phone": guest.phone_number or "",
                "Email": guest.email or "",
                "Side": guest.side or "",
                "Group": guest.group_name or "",
                "Expected Guests": guest.expected_guests,
                "Notes": guest.notes or "",
            }
            if include_rsvp:
                row["RSVP Status"] = guest.rsvp_status.value
                row["Guest Count"] = guest.rsvp.guest_count if guest.rsvp else 0
                row["Table"] = guest.table_assignment.table.name if guest.table_assignment else ""

            data.append(row)

        df = pd.DataFrame(data, columns=[
            "Name", "Phone", "Email", "Side", "Group", "Expected Guests", "Notes"
        ] + (["RSVP Status", "Guest Count", "Table"] if include_rsvp else []))

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)

        return buffer.getvalue()

from .models import BatchReport, TraineeReport
from .serialize import load_report, report_from_dict, report_from_json, report_to_dict, report_to_json, save_report

__all__ = [
    "BatchReport",
    "TraineeReport",
    "load_report",
    "report_from_dict",
    "report_from_json",
    "report_to_dict",
    "report_to_json",
    "save_report",
]

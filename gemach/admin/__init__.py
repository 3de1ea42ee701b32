from gemach.admin.operations import (
    AdminOperation,
    AdminResult,
    BlockDate,
    CancelBooking,
    CreateBooking,
    MarkPaid,
    MarkPickedUp,
    MarkReturned,
    RescheduleBooking,
    SetDaySchedule,
    UnblockDate,
    UpdateBooking,
    apply_admin_operation,
    item_stats,
    slots_report,
)

__all__ = [
    "AdminOperation",
    "AdminResult",
    "SetDaySchedule",
    "BlockDate",
    "UnblockDate",
    "CreateBooking",
    "CancelBooking",
    "RescheduleBooking",
    "UpdateBooking",
    "MarkPickedUp",
    "MarkReturned",
    "MarkPaid",
    "apply_admin_operation",
    "slots_report",
    "item_stats",
]

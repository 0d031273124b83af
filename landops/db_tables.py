# db_tables.py: table names used by landops services
PROFILES                  = "profiles"
EVENTS                    = "events"
TASK_TEMPLATES            = "event_tasks_with_dynamic_estimates"
EVENT_TASKS               = "event_tasks"
MATERIAL_TEMPLATES        = "materials"
TASKS_DONE                = "tasks_done"
TASK_PROGRESS_ENTRIES     = "task_progress_entries"
MATERIALS_DELIVERED       = "materials_delivered"
MATERIAL_DELIVERIES       = "material_deliveries"
ADDITIONAL_TASKS          = "additional_tasks"
ADDITIONAL_TASK_PROGRESS  = "additional_task_progress_entries"
ADDITIONAL_MATERIALS      = "additional_materials"
EQUIPMENT                 = "equipment"
EQUIPMENT_USAGE           = "equipment_usage"
SETUP_DIGGING             = "setup_digging"
DAY_NOTES                 = "day_notes"
CALENDAR_MATERIALS        = "calendar_materials"

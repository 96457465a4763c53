from fuelind.core.use_cases.extract_logs import LogFilter, map_receipt, new_entry_id, process_batch

__all__ = ["LogFilter", "map_receipt", "new_entry_id", "process_batch"]

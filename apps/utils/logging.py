import logging
import json
import datetime


class JSONFormatter(logging.Formatter):
    """
    Production-safe JSON Formatter.
    Recursively scrubs sensitive keys from logs.
    """

    # Lowercase set of keys to redact
    SENSITIVE_KEYS = {
        'password', 'token', 'access', 'refresh',
        'secret', 'authorization', 'signature',
        'idempotency_key', 'card_number',
    }

    CONTEXT_FIELDS = ('order_id', 'order_number', 'user_id', 'product_id', 'status_code', 'duration_ms')

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if str(k).lower() not in self.SENSITIVE_KEYS else '***REDACTED***'
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        # Structured messages and dict args are scrubbed before rendering
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "path": record.pathname,
            "line": record.lineno,
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)

"""audit/ -- Append-only audit trail for privileged mutations.

models.py holds the AuditEntry record, store.py the append-only AuditStore,
recorder.py the per-route audited() decorator and record_event() helper.

Layer rule: audit/ imports from core/ and auth.models only. It does NOT
import from api/ or inventory/.
"""

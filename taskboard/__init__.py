# Task board: workflow columns, task state, and live change notifications
#
# Components:
#   schema.py      - Data model (Task, TaskStatus, TaskPriority)
#   errors.py      - Error taxonomy shared by store and server
#   validation.py  - Field checks for create / update / move payloads
#   persistence.py - JSON snapshot file backend
#   store.py       - In-memory task store (mutations, persist, emit)
#   query.py       - Filtering, board ordering, statistics
#   events.py      - Task events and the subscriber notification hub
#   config.py      - Server configuration (YAML + env)

# Source control services - git transport, export/import, diff, orchestration

# Core infrastructure - constants, exceptions, database, logging

"""Application-level infrastructure for the autorespawn subsystem."""

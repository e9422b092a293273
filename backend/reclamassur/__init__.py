"""ReclamAssur - insurance claim dispute backend."""

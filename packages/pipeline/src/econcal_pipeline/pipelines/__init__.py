"""
econcal_pipeline.pipelines — Import orchestrators.

Each import function is async, drives one ImportRun and returns an
ImportResult.

    from econcal_pipeline.pipelines import calendar, historical

    result = await historical.import_bls(["LNS14000000"], start_year=2020)
    result = await calendar.import_cme_events(months=2)
"""

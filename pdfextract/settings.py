# When True, recoverable problems (bad filters, broken fonts, unknown
# operators, dangling references) raise instead of being logged.
STRICT = False

# Analysis engines: indicators, patterns, levels, ensemble, fusion, orchestration

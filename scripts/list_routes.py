import app

ROUTE_PREFIXES = ("/api/director", "/api/faculty", "/api/department", "/api/question-papers")

for prefix in ROUTE_PREFIXES:
    print(prefix)
    for rule in sorted(app.app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.rule.startswith(prefix):
            methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
            print("  ", methods.ljust(12), rule.rule, "->", rule.endpoint)

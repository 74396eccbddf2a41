import json, os, sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from favorability.catalog import CATALOG_SCHEMA, FactorCatalog, catalogs_dir
from favorability.errors import CatalogError
from jsonschema import validate, ValidationError


def check_file(path):
    """Return a list of problems for one catalog file (empty when valid)."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        return [f"JSON parse error: {e}"]
    try:
        validate(instance=data, schema=CATALOG_SCHEMA)
    except ValidationError as e:
        return [f"Schema validation error: {e.message}"]
    try:
        FactorCatalog.from_dict(data)
    except CatalogError as e:
        return [f"Invariant error: {e}"]
    return []


def main(directory=None):
    cd = directory or catalogs_dir()
    errors = []
    domains = {}
    for fname in sorted(os.listdir(cd)):
        if not fname.endswith(".json"):
            continue
        problems = check_file(os.path.join(cd, fname))
        errors.extend((fname, p) for p in problems)
        if not problems:
            with open(os.path.join(cd, fname), 'r', encoding='utf-8') as f:
                domain = json.load(f)["domain"]
            if domain in domains:
                errors.append((fname, f"Duplicate domain '{domain}' (also in {domains[domain]})"))
            domains.setdefault(domain, fname)
    if errors:
        print("Validation FAILED")
        for e in errors:
            print(e)
        return 2
    print(f"All catalog JSON files valid ({len(domains)} domains).")
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else None))

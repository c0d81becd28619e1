# packledger/domains/__init__.py

# packledger/domains/usr/__init__.py

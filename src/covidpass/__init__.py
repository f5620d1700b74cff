"""
covidpass — EU Digital COVID Certificate QR code → signed wallet pass.

Decodes the HC1 payload (base45 → zlib → COSE/CBOR), resolves coded
values through the public DCC value sets, maps the record onto a generic
pass layout, and packages a .pkpass archive countersigned by a remote
signing service.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

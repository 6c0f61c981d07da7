"""RFB rectangle encoders (raw, ZRLE, Tight) and their shared helpers."""
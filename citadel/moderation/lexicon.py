"""Banned-content lexicon, matched as whole words, case-insensitively."""

BANNED_WORDS: frozenset[str] = frozenset(
    {
        "anal", "anus", "arse", "ass", "asshole", "bastard", "bitch", "bloody",
        "blowjob", "bollocks", "boner", "boob", "bugger", "bullshit", "clit",
        "clitoris", "cock", "crap", "cunt", "damn", "dick", "dildo", "dyke",
        "fag", "faggot", "fanny", "fellate", "fellatio", "felch", "fuck",
        "gangbang", "goddamn", "handjob", "hell", "horny", "jerk", "jizz",
        "kike", "kys", "lust", "milf", "motherfucker", "nazi", "nude", "nigger",
        "orgy", "penis", "piss", "porn", "prick", "pussy", "queer", "retard",
        "scrotum", "sex", "sexy", "shit", "slut", "smegma", "spic", "suicide",
        "testicle", "tit", "turd", "vagina", "viagra", "vulva", "wank", "whore", "xxx",
    }
)  # fmt: skip

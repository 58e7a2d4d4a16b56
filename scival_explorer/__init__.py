"""SciVal Explorer: server-rendered search and detail pages over the Elsevier Scopus/SciVal APIs."""
